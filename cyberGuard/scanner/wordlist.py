"""Candidate generation from a subdomain wordlist."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from cyberGuard.logging_config import get_logger
from cyberGuard.resolver.models import MAX_DOMAIN_LENGTH, is_valid_label, parse_domain
from cyberGuard.scanner.models import SubdomainCandidate

logger = get_logger("scanner")

DEFAULT_WORDLIST: List[str] = [
    "www", "mail", "ftp", "api", "blog", "dev", "staging", "cdn",
    "admin", "app", "apps", "auth", "autodiscover", "backup", "beta", "ci",
    "cloud", "cms", "console", "cpanel", "dashboard", "db", "demo", "docs",
    "download", "email", "exchange", "files", "forum", "gateway", "git", "gitlab",
    "grafana", "help", "imap", "img", "internal", "intranet", "jenkins", "jira",
    "kb", "ldap", "login", "m", "media", "monitor", "mx", "mx1",
    "mx2", "my", "news", "ns", "ns1", "ns2", "ns3", "old",
    "owa", "panel", "pop", "pop3", "portal", "preprod", "prod", "proxy",
    "qa", "remote", "sandbox", "secure", "shop", "smtp", "sso", "stage",
    "static", "status", "store", "support", "test", "uat", "vpn", "web",
    "webmail", "wiki", "www1", "www2", "assets", "images", "search", "video",
    "partners", "billing", "crm", "erp", "sftp", "ws", "v1", "v2",
    "origin", "edge", "vault", "registry",
]


def load_wordlist(path: str) -> List[str]:
    """Read one label per line, skipping blanks and # comments."""
    wordlist_path = Path(path)
    if not wordlist_path.exists():
        raise FileNotFoundError(f"Wordlist not found: {wordlist_path}")
    labels = []
    for line in wordlist_path.read_text(encoding="utf-8", errors="replace").splitlines():
        entry = line.split("#", 1)[0].strip()
        if entry:
            labels.append(entry)
    return labels


class CandidateGenerator:
    """Lazy, restartable sequence of candidates for one domain.

    Every iteration walks the wordlist again; nothing touches the network.
    Labels are lower-cased and invalid ones are skipped.
    """

    def __init__(self, domain: str, wordlist: Optional[Iterable[str]] = None) -> None:
        self.domain = parse_domain(domain)
        self.wordlist = list(wordlist) if wordlist is not None else list(DEFAULT_WORDLIST)

    def _candidate(self, raw: str) -> Optional[SubdomainCandidate]:
        label = raw.strip().lower().rstrip(".")
        if not is_valid_label(label):
            return None
        candidate = SubdomainCandidate(label=label, domain=self.domain)
        if len(candidate.fqdn) > MAX_DOMAIN_LENGTH:
            return None
        return candidate

    def __iter__(self) -> Iterator[SubdomainCandidate]:
        for raw in self.wordlist:
            candidate = self._candidate(raw)
            if candidate is None:
                logger.debug(f"Skipping invalid wordlist label {raw!r}", extra={"domain": self.domain})
                continue
            yield candidate

    def __len__(self) -> int:
        """Number of candidates an iteration yields."""
        return sum(1 for raw in self.wordlist if self._candidate(raw) is not None)
