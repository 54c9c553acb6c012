"""
Credential service - Download secrets scoped to one buyer and one item.

A credential is an HMAC-SHA256 over "email:item_id:issued_at" keyed
with the process-level signing secret. It is written once, when the
purchase is created, and is never regenerated.

Verification Rules:
- A completed purchase must exist for exactly (email, item_id)
- The provided secret must equal that purchase's stored credential
- Comparison is constant-time (secrets.compare_digest)
- When no candidate purchase exists, a dummy credential is still
  compared so the no-purchase path costs the same as a mismatch

Possession of a credential without a completed purchase grants nothing.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from .ports import PurchaseRepository

# Compared against when no completed purchase exists for the pair
_DUMMY_CREDENTIAL = "0" * 64


def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase, for consistent storage and lookup."""
    return email.strip().lower()


@dataclass
class CredentialService:
    """Issues and verifies per-(buyer, item) download secrets."""

    repository: PurchaseRepository
    signing_secret: str
    length: int = 32

    def issue(self, buyer_email: str, item_id: str, issued_at: datetime | None = None) -> str:
        """
        Derive a new download secret for one buyer and one item.

        Args:
            buyer_email: Buyer email (normalized here)
            item_id: Catalog item id
            issued_at: Issuance time, defaults to now (UTC)

        Returns:
            Hex secret of `length` characters
        """
        issued_at = issued_at or datetime.now(timezone.utc)
        message = f"{normalize_email(buyer_email)}:{item_id}:{issued_at.isoformat()}"
        digest = hmac.new(
            self.signing_secret.encode(), message.encode(), hashlib.sha256
        ).hexdigest()
        return digest[: self.length]

    def verify(self, item_id: str, email: str, provided_secret: str) -> bool:
        """
        Check a download secret against completed purchases.

        Read-only. Returns True only for the exact (email, item_id)
        pair the credential was issued for, once its purchase completed.
        """
        candidates = self.repository.completed_credentials(normalize_email(email), item_id)
        provided = provided_secret.encode()

        matched = False
        for stored in candidates or [_DUMMY_CREDENTIAL]:
            # Evaluate every candidate; no early exit
            if secrets.compare_digest(stored.encode(), provided):
                matched = True

        return matched and bool(candidates)
