"""Data-driven city name corrections.

The rule table lives in YAML (see configs/city_rules.yaml) so new spelling
variants are added without touching code. Rules are tried in file order
against the trimmed, lower-cased city text and the first hit wins.
"""
import re
from dataclasses import dataclass, field
from typing import Optional

from olist_etl.utils.io import load_yaml

MATCH_KINDS = ("exact", "prefix", "contains", "regex")
ACTIONS = ("strip_parenthetical",)
SCOPES = ("geolocation", "seller", "customer")


@dataclass(frozen=True)
class CityRule:
    match: str
    patterns: tuple
    value: Optional[str] = None
    action: Optional[str] = None
    scopes: tuple = SCOPES

    def matches(self, text: str) -> bool:
        if self.match == "exact":
            return text in self.patterns
        if self.match == "prefix":
            return any(text.startswith(p) for p in self.patterns)
        if self.match == "contains":
            return any(p in text for p in self.patterns)
        return any(re.search(p, text) for p in self.patterns)

    def apply(self, raw: str) -> Optional[str]:
        if self.action == "strip_parenthetical":
            head = raw.split("(", 1)[0].strip()
            return capitalize_city(head) if head else None
        return self.value


@dataclass
class CityRuleSet:
    version: str
    rules: list = field(default_factory=list)
    word_replacements: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "CityRuleSet":
        rules = []
        for i, item in enumerate(data.get("rules") or []):
            match = item.get("match", "exact")
            if match not in MATCH_KINDS:
                raise ValueError(f"rule #{i}: unknown match kind '{match}'")
            action = item.get("action")
            if action is not None and action not in ACTIONS:
                raise ValueError(f"rule #{i}: unknown action '{action}'")
            patterns = item.get("patterns", item.get("pattern"))
            if patterns is None:
                raise ValueError(f"rule #{i}: no pattern given")
            if isinstance(patterns, str):
                patterns = [patterns]
            scopes = tuple(item.get("scopes") or SCOPES)
            unknown = set(scopes) - set(SCOPES)
            if unknown:
                raise ValueError(f"rule #{i}: unknown scopes {sorted(unknown)}")
            rules.append(CityRule(
                match=match,
                # regexes keep their case: \S and \D differ from \s and \d
                patterns=tuple(str(p) if match == "regex" else str(p).lower() for p in patterns),
                value=item.get("value"),
                action=action,
                scopes=scopes,
            ))
        replacements = {str(k).lower(): v for k, v in (data.get("word_replacements") or {}).items()}
        return cls(version=str(data.get("version", "0")), rules=rules, word_replacements=replacements)

    @classmethod
    def load(cls, path: str) -> "CityRuleSet":
        return cls.from_dict(load_yaml(path) or {})

    def lookup(self, text: str, scope: str):
        """Return the first rule hitting ``text`` (already trimmed and lower-cased)."""
        for rule in self.rules:
            if scope in rule.scopes and rule.matches(text):
                return rule
        return None


def capitalize_city(text: str) -> str:
    return text[:1].upper() + text[1:].lower()


def replace_words(text: str, replacements: dict) -> str:
    if not replacements:
        return text
    words = text.split(" ")
    for i, word in enumerate(words):
        repl = replacements.get(word.lower())
        if repl is None:
            continue
        words[i] = repl[:1].upper() + repl[1:] if word[:1].isupper() else repl
    return " ".join(words)
