"""Secret pattern catalog — line matchers with severity and remediation metadata."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import yaml

from secretsweep.scanner.models import Severity

#: A line matcher returns ``(offset, matched_text)`` for every hit in one line.
LineMatcher = Callable[[str], list[tuple[int, str]]]


@dataclass(frozen=True)
class RegexMatcher:
    """Line matcher backed by a compiled regex."""

    regex: re.Pattern[str]

    def __call__(self, line: str) -> list[tuple[int, str]]:
        return [(m.start(), m.group(0)) for m in self.regex.finditer(line)]


@dataclass(frozen=True)
class Pattern:
    """A detection rule: opaque line matcher plus metadata."""

    id: str
    name: str
    severity: Severity
    matcher: LineMatcher
    description: str = ""
    suggestion: str = ""

    def match(self, line: str) -> list[tuple[int, str]]:
        return self.matcher(line)


def regex_pattern(
    id: str,
    name: str,
    regex: str,
    severity: Severity,
    description: str = "",
    suggestion: str = "",
    flags: int = 0,
) -> Pattern:
    """Build a Pattern from a regex string."""
    return Pattern(
        id=id,
        name=name,
        severity=severity,
        matcher=RegexMatcher(re.compile(regex, flags)),
        description=description or f"{name} detected",
        suggestion=suggestion,
    )


PATTERNS: list[Pattern] = [
    # AI / ML providers
    regex_pattern(
        "openai-api-key",
        "OpenAI API Key",
        r"sk-[a-zA-Z0-9\-]{20,}",
        Severity.CRITICAL,
        suggestion="Move to environment variable: OPENAI_API_KEY",
    ),
    regex_pattern(
        "anthropic-api-key",
        "Anthropic API Key",
        r"sk-ant-[a-zA-Z0-9\-]{95}",
        Severity.CRITICAL,
        suggestion="Move to environment variable: ANTHROPIC_API_KEY",
    ),
    regex_pattern(
        "huggingface-token",
        "Hugging Face Token",
        r"hf_[a-zA-Z0-9]{34}",
        Severity.HIGH,
        suggestion="Move to environment variable: HUGGINGFACE_TOKEN",
    ),
    # Cloud
    regex_pattern(
        "aws-access-key",
        "AWS Access Key",
        r"AKIA[0-9A-Z]{16}",
        Severity.CRITICAL,
        description="AWS Access Key ID detected",
        suggestion="Move to AWS credentials file or environment variable",
    ),
    regex_pattern(
        "aws-secret-key",
        "AWS Secret Key",
        r"aws_secret_access_key\s*=\s*['\"]?([A-Za-z0-9/+=]{40})['\"]?",
        Severity.CRITICAL,
        description="AWS Secret Access Key detected",
        suggestion="Move to AWS credentials file or environment variable",
        flags=re.IGNORECASE,
    ),
    regex_pattern(
        "azure-storage-key",
        "Azure Storage Key",
        r"DefaultEndpointsProtocol=https;AccountName=[^;]+;AccountKey=[^;]+",
        Severity.CRITICAL,
        description="Azure Storage connection string detected",
        suggestion="Move to environment variable: AZURE_STORAGE_CONNECTION_STRING",
        flags=re.IGNORECASE,
    ),
    regex_pattern(
        "google-api-key",
        "Google API Key",
        r"AIza[0-9A-Za-z\-_]{35}",
        Severity.HIGH,
        suggestion="Restrict the key and move it to environment variable: GOOGLE_API_KEY",
    ),
    # Payments
    regex_pattern(
        "stripe-api-key",
        "Stripe Secret Key",
        r"sk_live_[0-9a-zA-Z]{24,}",
        Severity.CRITICAL,
        suggestion="Move to environment variable: STRIPE_SECRET_KEY",
    ),
    # Source control
    regex_pattern(
        "github-token",
        "GitHub Personal Access Token",
        r"gh[pousr]_[a-zA-Z0-9]{36}",
        Severity.CRITICAL,
        suggestion="Revoke the token and use GITHUB_TOKEN from the environment",
    ),
    regex_pattern(
        "gitlab-token",
        "GitLab Personal Access Token",
        r"glpat-[a-zA-Z0-9\-_]{20}",
        Severity.CRITICAL,
        suggestion="Revoke the token and move it to a CI variable",
    ),
    # Messaging
    regex_pattern(
        "slack-token",
        "Slack Token",
        r"xox[baprs]-[0-9]{10,13}-[0-9]{10,13}-[a-zA-Z0-9]{24,}",
        Severity.CRITICAL,
        suggestion="Move to environment variable: SLACK_TOKEN",
    ),
    regex_pattern(
        "slack-webhook",
        "Slack Webhook",
        r"https://hooks\.slack\.com/services/T[a-zA-Z0-9_]+/B[a-zA-Z0-9_]+/[a-zA-Z0-9_]+",
        Severity.HIGH,
        suggestion="Move to environment variable: SLACK_WEBHOOK_URL",
    ),
    regex_pattern(
        "sendgrid-api-key",
        "SendGrid API Key",
        r"SG\.[a-zA-Z0-9_-]{22}\.[a-zA-Z0-9_-]{43}",
        Severity.CRITICAL,
        suggestion="Move to environment variable: SENDGRID_API_KEY",
    ),
    # Package registries
    regex_pattern(
        "npm-token",
        "NPM Token",
        r"npm_[a-zA-Z0-9]{36}",
        Severity.CRITICAL,
        suggestion="Revoke token and use .npmrc with environment variable",
    ),
    regex_pattern(
        "docker-hub-token",
        "Docker Hub Token",
        r"dckr_pat_[a-zA-Z0-9_-]{36}",
        Severity.CRITICAL,
        suggestion="Revoke token and use Docker secrets",
    ),
    # Databases
    regex_pattern(
        "database-url",
        "Database URL with Credentials",
        r"(postgres|mysql|mongodb)://[^:\s]+:[^@\s]+@[^/\s]+",
        Severity.CRITICAL,
        suggestion="Move to environment variable: DATABASE_URL",
        flags=re.IGNORECASE,
    ),
    # Private keys
    regex_pattern(
        "private-key",
        "Private Key",
        r"-----BEGIN (?:RSA |OPENSSH |DSA |EC |PGP )?PRIVATE KEY(?: BLOCK)?-----",
        Severity.CRITICAL,
        suggestion="Remove the key from source and store it in a secrets manager",
    ),
    # Tokens and generic assignments
    regex_pattern(
        "jwt-token",
        "JSON Web Token",
        r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*",
        Severity.HIGH,
        suggestion="Do not commit issued tokens; generate them at runtime",
    ),
    regex_pattern(
        "generic-api-key",
        "Generic API Key",
        r"api[_-]?key\s*[:=]\s*['\"]([a-zA-Z0-9_\-]{20,})['\"]",
        Severity.HIGH,
        suggestion="Move to an environment variable",
        flags=re.IGNORECASE,
    ),
    regex_pattern(
        "generic-password",
        "Hardcoded Password",
        r"password\s*[:=]\s*['\"]([^'\"]{8,})['\"]",
        Severity.HIGH,
        suggestion="Move to an environment variable or secrets manager",
        flags=re.IGNORECASE,
    ),
]


def get_pattern(pattern_id: str) -> Pattern | None:
    """Look up a built-in pattern by id."""
    for pattern in PATTERNS:
        if pattern.id == pattern_id:
            return pattern
    return None


_FLAG_NAMES = {
    "ignorecase": re.IGNORECASE,
    "multiline": re.MULTILINE,
    "ascii": re.ASCII,
}


def load_patterns(path: str | Path) -> list[Pattern]:
    """Load a pattern catalog from a YAML file."""
    text = Path(path).read_text(encoding="utf-8")
    return load_patterns_from_string(text)


def load_patterns_from_string(text: str) -> list[Pattern]:
    """Parse a YAML string into a list of Patterns."""
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Pattern catalog YAML must be a mapping")
    entries = data.get("patterns", [])
    if not isinstance(entries, list):
        raise ValueError("'patterns' must be a list")
    return [_parse_pattern(entry) for entry in entries]


def _parse_pattern(entry: object) -> Pattern:
    if not isinstance(entry, dict):
        raise ValueError(f"Pattern entry must be a mapping, got {entry!r}")
    try:
        pattern_id = str(entry["id"])
        regex = str(entry["regex"])
    except KeyError as e:
        raise ValueError(f"Pattern entry missing required key {e}") from e

    try:
        severity = Severity(entry.get("severity", "high"))
    except ValueError as e:
        raise ValueError(f"Pattern '{pattern_id}': {e}") from e

    flags = 0
    for name in entry.get("flags", []):
        try:
            flags |= _FLAG_NAMES[name.lower()]
        except KeyError as e:
            raise ValueError(f"Pattern '{pattern_id}': unknown flag {name!r}") from e

    try:
        return regex_pattern(
            pattern_id,
            str(entry.get("name", pattern_id)),
            regex,
            severity,
            description=str(entry.get("description", "")),
            suggestion=str(entry.get("suggestion", "")),
            flags=flags,
        )
    except re.error as e:
        raise ValueError(f"Pattern '{pattern_id}' has an invalid regex: {e}") from e
