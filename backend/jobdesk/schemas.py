from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Literal

from jobdesk.ids import new_id, now_ms

QuoteStatus = Literal["draft", "pending", "approved", "in_progress", "completed", "canceled"]
ItemKind = Literal["material", "labor"]
PaymentMethod = Literal["cash", "transfer", "check"]
MaterialStatus = Literal["planned", "bought", "used"]
TrackingStatus = Literal[
    "pending_start", "in_progress", "waiting_client", "ready_to_deliver",
    "delivered", "closed", "completed", "canceled",
]
MovementType = Literal["inflow", "outflow", "adjustment"]

# ---- Clients ----
def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v

class ClientSnapshot(BaseModel):
    """Contact data frozen into a quote when it is written."""
    name: str = Field(min_length=1, max_length=200)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    tax_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _not_blank(v)

class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    frequent: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return _not_blank(v)

class ClientUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    tax_id: Optional[str] = None
    frequent: Optional[bool] = None

class Client(ClientCreate):
    id: str
    email: Optional[str] = None
    last_quote_id: Optional[str] = None
    last_quote_number: Optional[str] = None
    active_tracking_id: Optional[str] = None
    last_used_at: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    deleted_at: Optional[int] = None

# ---- Quotes ----
class QuoteItem(BaseModel):
    id: str = Field(default_factory=lambda: new_id("item"))
    kind: ItemKind = "labor"
    description: str = Field(min_length=1, max_length=300)
    quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None
    unit_price: float = Field(default=0, ge=0)
    material_reference_id: Optional[str] = None  # inventory material, if any
    total: float = 0

class QuoteMaterial(BaseModel):
    id: str = Field(default_factory=lambda: new_id("qmat"))
    name: str = Field(min_length=1, max_length=200)
    quantity: float = Field(default=0, ge=0)
    unit: Optional[str] = None
    unit_price: float = Field(default=0, ge=0)
    subtotal: Optional[float] = None

class Payment(BaseModel):
    id: str
    amount: float
    date: int
    method: PaymentMethod
    note: Optional[str] = None

class PaymentCreate(BaseModel):
    amount: float = Field(gt=0)
    method: PaymentMethod
    date: int = Field(default_factory=now_ms)
    note: Optional[str] = None

class QuoteCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    client_id: Optional[str] = None
    client_snapshot: ClientSnapshot
    items: List[QuoteItem] = Field(default_factory=list)
    materials: List[QuoteMaterial] = Field(default_factory=list)
    discount: float = Field(default=0, ge=0)
    status: Literal["draft", "pending"] = "draft"
    validity_days: int = Field(default=15, ge=0)
    notes: Optional[str] = None
    payment_terms: Optional[str] = None

class QuoteUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    client_snapshot: Optional[ClientSnapshot] = None
    items: Optional[List[QuoteItem]] = None
    materials: Optional[List[QuoteMaterial]] = None
    discount: Optional[float] = Field(default=None, ge=0)
    status: Optional[Literal["draft", "pending", "canceled"]] = None
    validity_days: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    payment_terms: Optional[str] = None

class Quote(BaseModel):
    id: str
    number: str
    title: str = ""
    client_id: Optional[str] = None
    client_snapshot: ClientSnapshot
    items: List[QuoteItem] = Field(default_factory=list)
    materials: List[QuoteMaterial] = Field(default_factory=list)
    subtotal: float = 0
    discount: float = 0
    total: float = 0
    status: QuoteStatus = "draft"
    validity_days: int = 15
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    payments: List[Payment] = Field(default_factory=list)
    outstanding_balance: float = 0
    tracking_id: Optional[str] = None
    approved_at: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    deleted_at: Optional[int] = None

# ---- Tracking ----
class TrackingTask(BaseModel):
    id: str
    text: str
    completed: bool = False
    related_item_id: Optional[str] = None
    created_at: Optional[int] = None

class TrackingMaterial(BaseModel):
    id: str
    name: str
    quantity: float = 0
    unit: Optional[str] = None
    status: MaterialStatus = "planned"
    original_material_id: Optional[str] = None

class DailyLog(BaseModel):
    id: str
    date: int
    content: str
    author: Optional[str] = None

class Tracking(BaseModel):
    id: str
    quote_id: str
    quote_number: str
    title: str = ""
    client_id: str
    client_snapshot: ClientSnapshot
    tasks: List[TrackingTask] = Field(default_factory=list)
    materials: List[TrackingMaterial] = Field(default_factory=list)
    daily_logs: List[DailyLog] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)
    total: float = 0
    outstanding_balance: float = 0
    status: TrackingStatus = "pending_start"
    dates: Dict[str, int] = Field(default_factory=dict)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    deleted_at: Optional[int] = None

class TaskCreate(BaseModel):
    text: str = Field(min_length=1, max_length=300)

class TaskCompletion(BaseModel):
    completed: bool

class MaterialStatusUpdate(BaseModel):
    status: MaterialStatus

class TrackingStatusUpdate(BaseModel):
    status: TrackingStatus

class DailyLogCreate(BaseModel):
    content: str = Field(min_length=1)
    author: Optional[str] = None
    date: int = Field(default_factory=now_ms)

# ---- Inventory ----
class MaterialCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    unit: str = "u"
    unit_price: float = Field(default=0, ge=0)
    stock_on_hand: float = Field(default=0, ge=0)
    min_stock: float = Field(default=0, ge=0)

class Material(MaterialCreate):
    id: str
    committed_stock: float = 0
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

class StockMovement(BaseModel):
    id: str
    material_id: str
    type: MovementType
    quantity: float
    reference: Optional[str] = None
    date: int
    created_at: Optional[int] = None

# ---- Reports ----
class DashboardStats(BaseModel):
    total_quotes: int = 0
    pending_count: int = 0
    approved_count: int = 0
    pending_amount: float = 0
    approved_amount: float = 0
    collected_amount: float = 0

class MonthlySummary(BaseModel):
    year: int
    month: int
    quote_income: float = 0
    manual_income: float = 0
    income: float = 0
    expenses: float = 0
    profit: float = 0

# ---- Expenses / manual ledger ----
LedgerKind = Literal["income", "expense"]

class ExpenseCreate(BaseModel):
    date: int = Field(default_factory=now_ms)
    category: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=300)
    amount: float = Field(gt=0)

class Expense(ExpenseCreate):
    id: str
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

class LedgerEntryCreate(ExpenseCreate):
    kind: LedgerKind

class LedgerEntry(LedgerEntryCreate):
    id: str
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

# ---- Templates ----
TemplateType = Literal[
    "clarifications", "conditions", "notes",
    "payment_conditions", "payment_method", "internal_notes",
]

class TemplateCreate(BaseModel):
    type: TemplateType
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    active: bool = True
    is_default: bool = False

class TemplateUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)
    active: Optional[bool] = None

class Template(TemplateCreate):
    id: str
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
