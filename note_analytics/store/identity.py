"""Article identity resolution.

Maps upstream article keys (and, for import rows, titles) onto stable
internal identities. Creation is an atomic insert-if-absent followed by a
read, so concurrent first sightings of the same key converge on one row.
"""

import hashlib
from dataclasses import dataclass

import structlog

from note_analytics.store.errors import AmbiguousTitleError, IdentityConflictError
from note_analytics.store.models import ArticleIdentity, ArticleStatus
from note_analytics.store.store import AnalyticsStore


logger = structlog.get_logger()

SYNTHETIC_KEY_PREFIX = "title:"
SYNTHETIC_KEY_DIGEST_LENGTH = 16


def synthetic_key_for_title(title: str) -> str:
    """Derive a deterministic external key for a title-only article.

    Args:
        title: Article title as it appears in the import file.

    Returns:
        Key of the form ``title:<first 16 hex chars of sha256>``.
    """
    digest = hashlib.sha256(title.strip().encode("utf-8")).hexdigest()
    return f"{SYNTHETIC_KEY_PREFIX}{digest[:SYNTHETIC_KEY_DIGEST_LENGTH]}"


def is_synthetic_key(external_key: str) -> bool:
    """Return True if the key was derived from a title, not seen upstream."""
    return external_key.startswith(SYNTHETIC_KEY_PREFIX)


@dataclass(frozen=True)
class ResolveOutcome:
    """Result of one identity resolution.

    Attributes:
        identity: The stored identity after this call.
        created: True if this call created the identity.
        previous_status: Status before this call, None if just created.
    """

    identity: ArticleIdentity
    created: bool
    previous_status: ArticleStatus | None


class ArticleIdentityResolver:
    """Resolves upstream keys to internal article identities."""

    def __init__(self, store: AnalyticsStore) -> None:
        """Initialize the resolver.

        Args:
            store: Connected analytics store.
        """
        self._store = store
        self._log = logger.bind(component="identity", run_id=store.run_id)

    def resolve(
        self,
        external_key: str,
        title: str,
        url: str | None = None,
    ) -> ArticleIdentity:
        """Return the identity for a key, creating it on first sighting.

        Idempotent: the same key always yields the same internal id.
        Title and url are refreshed from the caller (a None url keeps the
        stored one).
        """
        return self.resolve_detailed(external_key, title, url).identity

    def resolve_detailed(
        self,
        external_key: str,
        title: str | None,
        url: str | None = None,
        status: ArticleStatus = ArticleStatus.PUBLISHED,
    ) -> ResolveOutcome:
        """Resolve an identity and report what this call changed.

        Args:
            external_key: Upstream article key.
            title: Latest observed title. None keeps the stored title; an
                article created without one is titled with its key.
            url: Latest observed url.
            status: Status to assign if the article is created by this call.
                An existing article's status is never changed here.

        Raises:
            IdentityConflictError: If the row is missing after the upsert.
        """
        with self._store.transaction("resolve_identity"):
            created = self._store.insert_article_if_absent(
                external_key, title or external_key, url, status
            )
            before = None if created else self._store.get_article_by_key(external_key)
            if not created:
                self._store.refresh_article(external_key, title, url)
            identity = self._store.get_article_by_key(external_key)

        if identity is None:
            raise IdentityConflictError(
                f"Article {external_key!r} missing after upsert",
            )

        if created:
            self._log.info(
                "article_created",
                external_key=external_key,
                internal_id=identity.internal_id,
                status=identity.status.value,
            )

        return ResolveOutcome(
            identity=identity,
            created=created,
            previous_status=before.status if before is not None else None,
        )

    def resolve_import_target(
        self,
        external_key: str | None,
        title: str | None,
        status: ArticleStatus = ArticleStatus.PUBLISHED,
    ) -> ResolveOutcome:
        """Resolve the article an import row refers to.

        The external key is authoritative when present; a row without a
        title keeps the stored title. Otherwise the title is matched
        against canonical titles, preferring articles with an upstream key
        over ones registered under a synthetic key. A title that matches
        nothing is registered under a synthetic key derived from the title.

        Args:
            external_key: Key from the import row, if any.
            title: Title from the import row, if any.
            status: Status for an article created by this call.

        Raises:
            ValueError: If neither key nor title is given.
            AmbiguousTitleError: If the title matches several upstream-keyed
                articles.
        """
        if external_key:
            return self.resolve_detailed(external_key, title, None, status)

        if not title:
            raise ValueError("Import row needs an external key or a title")

        matches = self._store.find_articles_by_title(title)
        keyed = [m for m in matches if not is_synthetic_key(m.external_key)]
        candidates = keyed or matches
        if len(candidates) > 1:
            self._log.warning(
                "ambiguous_title",
                title=title,
                candidates=[m.internal_id for m in candidates],
            )
            raise AmbiguousTitleError(title, [m.internal_id for m in candidates])
        if candidates:
            return self.resolve_detailed(candidates[0].external_key, title, None, status)

        return self.resolve_detailed(synthetic_key_for_title(title), title, None, status)
