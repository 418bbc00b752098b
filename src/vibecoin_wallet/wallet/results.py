"""Tagged success/error results returned by every wallet operation."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from vibecoin_wallet.wallet.errors import WalletError


class OperationResult(BaseModel):
    """Outcome of one wallet operation.

    Exactly one of ``data`` (on success) or ``error``/``code`` (on failure)
    is meaningful. Never contains key material.
    """

    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, **data: Any) -> OperationResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: WalletError) -> OperationResult:
        return cls(success=False, error=exc.message, code=exc.code)

    def to_dict(self) -> dict[str, Any]:
        """Flat dict in the shape the launch tooling has always returned."""
        if self.success:
            return {"success": True, **self.data}
        return {"success": False, "error": self.error, "code": self.code}
