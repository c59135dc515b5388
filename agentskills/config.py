from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping, Sequence, TypeVar

from loguru import logger

from agentskills.errors import ConfigurationError
from agentskills.prompts import Choice, Prompter
from agentskills.runtimes import DEFAULT_RUNTIME, Runtime, Scope
from agentskills.skills import SkillBundle

ENV_SCOPE = "AGENT_SKILLS_SCOPE"
ENV_RUNTIMES = "AGENT_SKILLS_RUNTIMES"
ENV_SKILLS = "AGENT_SKILLS_SKILLS"
ENV_COMMANDS = "AGENT_SKILLS_COMMANDS"
ENV_GITIGNORE = "AGENT_SKILLS_GITIGNORE"
ENV_PROMPT = "AGENT_SKILLS_PROMPT"
ENV_SOURCE = "AGENT_SKILLS_SOURCE"
ENV_WORKERS = "AGENT_SKILLS_WORKERS"

ALL_SKILLS = "all"
DEFAULT_WORKERS = 4
MAX_WORKERS = 32

T = TypeVar("T")


class PromptPolicy(str, enum.Enum):
    ALWAYS = "always"
    SKIP_IF_FLAGGED = "skip-if-flagged"
    NEVER = "never"

    @classmethod
    def parse(cls, value: str) -> "PromptPolicy":
        text = value.strip().lower()
        for member in cls:
            if member.value == text:
                return member
        known = ", ".join(member.value for member in cls)
        raise ConfigurationError(f"unknown prompt policy: {value!r}. expected one of: {known}", value=value)


class Origin(str, enum.Enum):
    FLAG = "flag"
    ENV = "env"
    PROMPT = "prompt"
    DEFAULT = "default"


@dataclass(slots=True)
class InstallRequest:
    scope: Scope = Scope.GLOBAL
    runtimes: tuple[Runtime, ...] = (DEFAULT_RUNTIME,)
    skills: tuple[str, ...] | Literal["all"] = ALL_SKILLS
    prompt_policy: PromptPolicy = PromptPolicy.ALWAYS
    install_commands: bool = True
    update_gitignore: bool = False
    source: str | None = None
    workers: int = DEFAULT_WORKERS
    origins: dict[str, Origin] = field(default_factory=dict)

    @property
    def all_skills(self) -> bool:
        return self.skills == ALL_SKILLS

    def select(self, available: Sequence[SkillBundle]) -> list[SkillBundle]:
        """Selected bundles, in discovery order."""
        if self.all_skills:
            return list(available)
        wanted = set(self.skills)
        return [bundle for bundle in available if bundle.name in wanted]

    def validate(self, available: Sequence[SkillBundle] | None = None) -> None:
        if not self.runtimes:
            raise ConfigurationError("at least one runtime must be selected")
        if len(set(self.runtimes)) != len(self.runtimes):
            raise ConfigurationError("runtimes must not repeat")
        if not (1 <= self.workers <= MAX_WORKERS):
            raise ConfigurationError(f"workers must be between 1 and {MAX_WORKERS}", value=str(self.workers))
        if available is not None and not self.all_skills:
            known = {bundle.name for bundle in available}
            unknown = [name for name in self.skills if name not in known]
            if unknown:
                listing = ", ".join(sorted(known))
                raise ConfigurationError(f"unknown skill: {unknown[0]}. available skills: {listing}", value=unknown[0])

    def describe(self) -> list[str]:
        skills = ALL_SKILLS if self.all_skills else ", ".join(self.skills) or "(none)"
        lines = [
            f"  Scope: {self.scope.value}",
            f"  Runtimes: {', '.join(r.target.display_name for r in self.runtimes)}",
            f"  Skills: {skills}",
            f"  Commands: {'Yes' if self.install_commands else 'No'}",
        ]
        if self.scope is Scope.LOCAL:
            lines.append(f"  Update .gitignore: {'Yes' if self.update_gitignore else 'No'}")
        return lines


def parse_runtimes(names: Sequence[str]) -> tuple[Runtime, ...]:
    picked: list[Runtime] = []
    for name in names:
        runtime = Runtime.get(name)
        if runtime not in picked:
            picked.append(runtime)
    return tuple(picked)


def _as_bool(value: str, *, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}", value=value)


def _as_int(value: str, *, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", value=value) from exc


def _as_list(value: str) -> list[str]:
    return [part.strip() for part in value.replace(" ", ",").split(",") if part.strip()]


def _as_skills(values: Sequence[str]) -> tuple[str, ...] | Literal["all"]:
    if any(value.strip().lower() == ALL_SKILLS for value in values):
        return ALL_SKILLS
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


class ConfigResolver:
    """Merge flags, environment, prompt answers and defaults into an InstallRequest.

    Precedence is flag > environment > prompt > default. Under ``always`` a
    field is prompted only when neither a flag nor the environment set it.
    Under ``skip-if-flagged`` only flags suppress the prompt; a field set by
    the environment is still asked, with the environment value as the
    default, but the environment value is kept. ``never`` disables
    prompting entirely. An environment value is parsed only when no flag
    overrides it.
    """

    def __init__(
        self,
        args: Any,
        available: Sequence[SkillBundle],
        *,
        env: Mapping[str, str] | None = None,
        prompter: Prompter | None = None,
        interactive: bool = True,
    ) -> None:
        self.args = args
        self.available = list(available)
        self.env = dict(os.environ if env is None else env)
        self.prompter = prompter or Prompter()
        self.interactive = interactive
        self.origins: dict[str, Origin] = {}
        self.policy = PromptPolicy.ALWAYS

    def _env(self, key: str) -> str | None:
        value = self.env.get(key)
        if value is None or not value.strip():
            return None
        return value.strip()

    def _field(
        self,
        name: str,
        *,
        flag: T | None,
        env_key: str,
        parse: Callable[[str], T],
        default: T,
        ask: Callable[[T], T] | None,
    ) -> T:
        if flag is not None:
            self.origins[name] = Origin.FLAG
            return flag
        raw = self._env(env_key)
        env = parse(raw) if raw is not None else None
        prompt_allowed = ask is not None and self.policy is not PromptPolicy.NEVER
        if prompt_allowed and env is None:
            self.origins[name] = Origin.PROMPT
            return ask(default)
        if env is not None:
            if prompt_allowed and self.policy is PromptPolicy.SKIP_IF_FLAGGED:
                answer = ask(env)
                if answer != env:
                    logger.warning("{} is set by {}; ignoring the prompt answer", name, env_key)
            self.origins[name] = Origin.ENV
            return env
        self.origins[name] = Origin.DEFAULT
        return default

    def _resolve_policy(self) -> PromptPolicy:
        if getattr(self.args, "yes", False):
            return PromptPolicy.NEVER
        raw = getattr(self.args, "prompt", None) or self._env(ENV_PROMPT)
        policy = PromptPolicy.parse(raw) if raw else PromptPolicy.ALWAYS
        if not self.interactive and policy is not PromptPolicy.NEVER:
            logger.debug("stdin is not a terminal; prompts disabled")
            return PromptPolicy.NEVER
        return policy

    def resolve(self) -> InstallRequest:
        self.policy = self._resolve_policy()
        args = self.args

        scope_flag = None
        if getattr(args, "local", False):
            scope_flag = Scope.LOCAL
        elif getattr(args, "global_scope", False):
            scope_flag = Scope.GLOBAL
        scope = self._field(
            "scope",
            flag=scope_flag,
            env_key=ENV_SCOPE,
            parse=Scope.parse,
            default=Scope.GLOBAL,
            ask=self._ask_scope,
        )

        runtime_flags = list(getattr(args, "runtimes", None) or [])
        runtimes = self._field(
            "runtimes",
            flag=parse_runtimes(runtime_flags) if runtime_flags else None,
            env_key=ENV_RUNTIMES,
            parse=lambda raw: parse_runtimes(_as_list(raw)),
            default=(DEFAULT_RUNTIME,),
            ask=self._ask_runtimes,
        )

        skills_flag: tuple[str, ...] | Literal["all"] | None = None
        if getattr(args, "all", False):
            skills_flag = ALL_SKILLS
        elif getattr(args, "skills", None):
            skills_flag = _as_skills(args.skills)
        skills = self._field(
            "skills",
            flag=skills_flag,
            env_key=ENV_SKILLS,
            parse=lambda raw: _as_skills(_as_list(raw)),
            default=ALL_SKILLS,
            ask=self._ask_skills,
        )

        install_commands = self._field(
            "install_commands",
            flag=getattr(args, "commands", None),
            env_key=ENV_COMMANDS,
            parse=lambda raw: _as_bool(raw, name=ENV_COMMANDS),
            default=True,
            ask=self._ask_commands if any(r.target.supports_commands for r in runtimes) else None,
        )

        update_gitignore = self._field(
            "update_gitignore",
            flag=getattr(args, "gitignore", None),
            env_key=ENV_GITIGNORE,
            parse=lambda raw: _as_bool(raw, name=ENV_GITIGNORE),
            default=False,
            ask=self._ask_gitignore if scope is Scope.LOCAL else None,
        )

        workers = self._field(
            "workers",
            flag=getattr(args, "workers", None),
            env_key=ENV_WORKERS,
            parse=lambda raw: _as_int(raw, name=ENV_WORKERS),
            default=DEFAULT_WORKERS,
            ask=None,
        )

        request = InstallRequest(
            scope=scope,
            runtimes=tuple(runtimes),
            skills=skills,
            prompt_policy=self.policy,
            install_commands=bool(install_commands),
            update_gitignore=bool(update_gitignore),
            source=getattr(args, "source", None) or self._env(ENV_SOURCE),
            workers=int(workers),
            origins=dict(self.origins),
        )
        request.validate(self.available)
        logger.debug("Resolved install request: {} (origins: {})", request, {k: v.value for k, v in request.origins.items()})
        return request

    def _ask_scope(self, default: Scope) -> Scope:
        answer = self.prompter.select(
            "Select installation scope:",
            [
                Choice(Scope.GLOBAL.value, "Global (user space ~)"),
                Choice(Scope.LOCAL.value, "Local (project ./)"),
            ],
            default=default.value,
        )
        return Scope.parse(answer)

    def _ask_runtimes(self, default: tuple[Runtime, ...]) -> tuple[Runtime, ...]:
        choices = [
            Choice(r.id, r.target.display_name, "supports commands" if r.target.supports_commands else "")
            for r in Runtime
        ]
        answer = self.prompter.multiselect("Select agents to install to:", choices, default=[r.id for r in default])
        return parse_runtimes(answer)

    def _ask_skills(self, default: tuple[str, ...] | Literal["all"]) -> tuple[str, ...] | Literal["all"]:
        choices = [Choice(b.name, b.name, "has commands" if b.has_commands else "") for b in self.available]
        names = [b.name for b in self.available] if default == ALL_SKILLS else list(default)
        answer = self.prompter.multiselect("Select skills to install:", choices, default=names)
        if default == ALL_SKILLS and answer == names:
            return ALL_SKILLS
        return _as_skills(answer)

    def _ask_commands(self, default: bool) -> bool:
        return self.prompter.confirm("Install commands for supported agents?", default=default)

    def _ask_gitignore(self, default: bool) -> bool:
        return self.prompter.confirm("Add agent folders to .gitignore?", default=default)


def resolve_request(
    args: Any,
    available: Sequence[SkillBundle],
    *,
    env: Mapping[str, str] | None = None,
    prompter: Prompter | None = None,
    interactive: bool = True,
) -> InstallRequest:
    return ConfigResolver(args, available, env=env, prompter=prompter, interactive=interactive).resolve()
