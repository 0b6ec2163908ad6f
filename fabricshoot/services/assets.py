"""
Asset Reference Resolver
Turns a job's declared inputs into concrete image URLs.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

from sqlalchemy.orm import Session

from fabricshoot.models.assets import BackgroundImage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundPicker:
    """Uniform random choice; pass a seeded `random.Random` for repeatable picks."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def pick_random(self, candidates: Sequence[T]) -> Optional[T]:
        if not candidates:
            return None
        return self._rng.choice(list(candidates))


@dataclass(frozen=True)
class ResolvedAssets:
    source_image_url: str
    background_image_url: Optional[str]
    mannequin_image_url: Optional[str]

    def reference_urls(self) -> list:
        """Attachment order the prompt's reference guide describes."""
        urls = [self.source_image_url]
        if self.mannequin_image_url:
            urls.append(self.mannequin_image_url)
        if self.background_image_url:
            urls.append(self.background_image_url)
        return urls


class AssetResolver:
    """Resolves source, background and mannequin references for one user."""

    def __init__(self, db: Session, picker: Optional[BackgroundPicker] = None):
        self.db = db
        self.picker = picker or BackgroundPicker()

    def resolve_background(self, user_id: str, explicit_url: Optional[str] = None) -> Optional[str]:
        """
        Explicit URL wins; otherwise a random upload of the user's; otherwise None.

        None means "generic studio backdrop", not an error. Listing failures
        propagate.
        """
        if explicit_url:
            return explicit_url

        candidates = (
            self.db.query(BackgroundImage)
            .filter(BackgroundImage.user_id == user_id)
            .order_by(BackgroundImage.uploaded_at.desc())
            .all()
        )
        chosen = self.picker.pick_random(candidates)
        if chosen is None:
            logger.info(f"[Assets] No backgrounds for user {user_id}, using studio backdrop")
            return None
        logger.info(f"[Assets] Picked background {chosen.id} of {len(candidates)}")
        return chosen.image_url

    def resolve(self, user_id: str, source_image_url: str,
                background_url: Optional[str] = None,
                mannequin_url: Optional[str] = None) -> ResolvedAssets:
        return ResolvedAssets(
            source_image_url=source_image_url,
            background_image_url=self.resolve_background(user_id, background_url),
            mannequin_image_url=mannequin_url or None,
        )
