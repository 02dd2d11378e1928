"""
Database Schemas for the Loan Marketplace

Each collection model mirrors one MongoDB collection:
- User -> "users"
- LoanProduct -> "loans"
- LoanApplication -> "loanApplications"

The remaining models are request bodies.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Literal

from auth import Role
from lifecycle import ApplicationStatus, FeeStatus


class User(BaseModel):
    email: str = Field(..., description="Identity email, unique")
    name: Optional[str] = Field(None, description="Display name")
    photoURL: Optional[str] = None
    role: Role = Role.BORROWER
    status: Literal["approved", "active", "suspended"] = "active"
    createdAt: Optional[str] = None
    lastLoggedIn: Optional[str] = None
    suspendReason: Optional[str] = None
    suspendFeedback: Optional[str] = None


class LoanProduct(BaseModel):
    loanTitle: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: str = Field(..., min_length=1)
    interestRate: float = Field(..., ge=0, description="Annual interest rate as percent, e.g., 12.5")
    maxLoanLimit: float = Field(..., ge=0)
    emiPlans: List[str] = Field(default_factory=list)
    requiredDocuments: List[str] = Field(default_factory=list)
    image: Optional[str] = None
    showOnHome: bool = False


class PaymentInfo(BaseModel):
    email: Optional[str] = None
    transactionId: Optional[str] = None
    sessionId: str
    amount: Optional[float] = None
    paidAt: str


class LoanApplication(BaseModel):
    model_config = ConfigDict(extra="allow")

    loanId: str
    userEmail: str
    loanTitle: Optional[str] = None
    interestRate: Optional[float] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    applicationFeeStatus: FeeStatus = FeeStatus.UNPAID
    paymentInfo: Optional[PaymentInfo] = None
    rejectionReason: Optional[str] = None
    handledBy: Optional[str] = None
    appliedAt: Optional[str] = None
    approvedAt: Optional[str] = None
    rejectedAt: Optional[str] = None
    updatedAt: Optional[str] = None


# Request bodies

class SaveUserRequest(BaseModel):
    email: str
    name: Optional[str] = None
    photoURL: Optional[str] = None
    # admins are only ever promoted by another admin
    role: Literal["borrower", "manager"] = "borrower"


class LoanProductUpdate(BaseModel):
    """General fields a manager may change; visibility is admin-only."""
    model_config = ConfigDict(extra="forbid")

    loanTitle: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    interestRate: Optional[float] = Field(None, ge=0)
    maxLoanLimit: Optional[float] = Field(None, ge=0)
    emiPlans: Optional[List[str]] = None
    requiredDocuments: Optional[List[str]] = None
    image: Optional[str] = None


class ShowOnHomeRequest(BaseModel):
    showOnHome: bool


class ApplicationSubmitRequest(BaseModel):
    """Applicant form; fields beyond the known ones are stored as submitted."""
    model_config = ConfigDict(extra="allow")

    loanId: str = Field(..., min_length=1)
    userEmail: Optional[str] = None
    loanTitle: Optional[str] = None
    interestRate: Optional[float] = None


class CheckoutRequest(BaseModel):
    loanId: str
    userEmail: str
    loanTitle: Optional[str] = None
    applicationId: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    sessionId: str = Field(..., min_length=1)


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class ApplicationStatusRequest(BaseModel):
    status: Literal["approved", "rejected"]
    reason: Optional[str] = None


class RoleUpdateRequest(BaseModel):
    role: Role


class SuspendRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    feedback: Optional[str] = None
