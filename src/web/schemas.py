"""
Response bodies of the public HTTP API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from shop.campaigns import SendReport


class SendFailure(BaseModel):
    recipient: str = Field(..., description="Email address that was not delivered")
    error: Optional[str] = Field(None, description="Transport or provider error")


class SendReportResponse(BaseModel):
    success: bool = Field(..., description="True when at least one recipient was mailed")
    campaign_id: int
    sent: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    failures: List[SendFailure] = Field(default_factory=list)
    message: Optional[str] = None

    @classmethod
    def from_report(cls, report: SendReport) -> "SendReportResponse":
        success = report.sent > 0
        return cls(
            success=success,
            campaign_id=report.campaign_id,
            sent=report.sent,
            failed=report.failed,
            failures=[SendFailure(recipient=r.recipient, error=r.error) for r in report.failures],
            message=f"Campaign sent to {report.sent} customers" if success else None,
        )
