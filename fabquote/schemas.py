from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from .models import ProcessKind, SheetMode, CostMode, GrainDirection
from .config import settings
from .geometry import developed_width


# --- Catalog / BOM inputs ---

class StockSheet(BaseModel):
    id: str
    width: float   # mm
    height: float  # mm
    label: str = ""

    class Config:
        frozen = True

    @property
    def area_mm2(self) -> float:
        return self.width * self.height

    @property
    def area_m2(self) -> float:
        return self.area_mm2 / 1_000_000


class SheetBlank(BaseModel):
    id: str
    width: float   # mm, flat (before bends)
    height: float  # mm
    quantity: int = Field(default=1, le=settings.MAX_PART_QUANTITY)
    thickness_mm: float
    family: str
    can_rotate: bool = True
    grain_direction: Optional[GrainDirection] = None
    bend_angles_deg: List[float] = []  # bends run along the height

    class Config:
        frozen = True

    @property
    def rotatable(self) -> bool:
        """A grain-constrained blank keeps its orientation whatever the flag says."""
        return self.can_rotate and self.grain_direction is None

    def developed(self) -> "SheetBlank":
        """The blank as cut from the sheet: bend allowance added to the width."""
        if not self.bend_angles_deg:
            return self
        width = developed_width(self.width, self.bend_angles_deg, self.thickness_mm)
        return self.model_copy(update={"width": width, "bend_angles_deg": []})


class BarPart(BaseModel):
    """One cut length of tube or angle, for bar counting."""
    id: str
    length_mm: float = Field(gt=0)
    quantity: int = Field(default=1, ge=1, le=settings.MAX_PART_QUANTITY)


class TubePart(BaseModel):
    id: str
    meters: float
    tube_key: str
    family: str = ""


class AnglePart(BaseModel):
    id: str
    meters: float
    angle_key: str
    family: str = ""


class AccessoryPart(BaseModel):
    sku: str
    description: str = ""
    quantity: float = 1


class ProcessItem(BaseModel):
    kind: ProcessKind
    description: str = ""
    minutes: float


class BOM(BaseModel):
    sheet_parts: List[SheetBlank] = []
    tube_parts: List[TubePart] = []
    angle_parts: List[AnglePart] = []
    accessories: List[AccessoryPart] = []
    processes: List[ProcessItem] = []


class PricingTables(BaseModel):
    material_price_per_kg: float
    density_kg_m3: float = settings.DEFAULT_DENSITY_KG_M3
    sheet_catalog: List[StockSheet] = []
    tube_kg_per_meter: Dict[str, float] = {}
    angle_kg_per_meter: Dict[str, float] = {}
    accessory_unit_price: Dict[str, float] = {}
    process_cost_per_hour: Dict[ProcessKind, float] = {}
    overhead_percent: float = 0.0  # 0..1

    def find_sheet(self, sheet_id: Optional[str]) -> Optional[StockSheet]:
        for sheet in self.sheet_catalog:
            if sheet.id == sheet_id:
                return sheet
        return None


class PricingRules(BaseModel):
    min_margin_pct: float = 0.0  # 0..1, share of revenue
    markup: float = 1.0          # multiplier on cost base


class SheetPolicy(BaseModel):
    mode: SheetMode = SheetMode.AUTO
    manual_sheet_id: Optional[str] = None
    cost_mode: CostMode = CostMode.BOUGHT
    scrap_min_pct: float = settings.SCRAP_MIN_PCT_DEFAULT


class QuoteRequest(BaseModel):
    tables: PricingTables
    rules: PricingRules = PricingRules()
    policies: Dict[str, SheetPolicy] = {}
    bom: BOM


# --- Validation output ---

class ValidationIssue(BaseModel):
    field: str
    message: str


# --- Nesting outputs ---

class NestingResult(BaseModel):
    sheet: StockSheet
    sheets_used: int
    area_used_m2: float
    area_bought_m2: float
    efficiency: float
    waste: float


class PlacedBlank(BaseModel):
    instance_id: str
    blank_id: str
    x: float
    y: float
    width: float   # as placed
    height: float  # as placed
    rotated: bool = False


class BarLayout(BaseModel):
    bar_index: int
    pieces: List[str] = []  # instance ids, in cut order
    consumed_mm: float = 0.0  # piece lengths plus kerf
    leftover_mm: float = 0.0


class BarNestingResult(BaseModel):
    bar_length_mm: float
    usable_length_mm: float
    bars_used: int
    cuts: int
    used_length_mm: float
    utilization: float
    leftover_m: float
    bars: List[BarLayout] = []


class SheetLayout(BaseModel):
    sheet_index: int
    sheet: StockSheet
    placed: List[PlacedBlank] = []
    used_area_mm2: float = 0.0
    waste_area_mm2: float = 0.0
    utilization: float = 0.0

    @property
    def waste_pct(self) -> float:
        if self.sheet.area_mm2 <= 0:
            return 0.0
        return self.waste_area_mm2 / self.sheet.area_mm2


class PlacementResult(BaseModel):
    layouts: List[SheetLayout] = []
    utilization: float = 0.0
    warnings: List[str] = []

    @property
    def total_sheets(self) -> int:
        return len(self.layouts)

    @property
    def total_parts(self) -> int:
        return sum(len(layout.placed) for layout in self.layouts)


# --- Quote outputs ---

class GroupQuote(BaseModel):
    group_key: str  # "family|thickness"
    family: str
    thickness_mm: float
    policy: SheetPolicy
    nesting: NestingResult
    kg_bought: float
    cost_sheet: float


class CostBreakdown(BaseModel):
    sheet: float
    tubes: float
    angles: float
    accessories: float
    processes: float
    overhead: float
    cost_base: float
    price_min_safe: float
    price_suggested: float


class MassSummary(BaseModel):
    sheet_kg: float = 0.0
    tube_kg: float = 0.0
    angle_kg: float = 0.0
    total_kg: float = 0.0


class QuoteResult(BaseModel):
    groups: List[GroupQuote] = []
    costs: CostBreakdown
    rules: PricingRules = PricingRules()
    input_hash: str = ""  # sha256 of tables + policies + BOM
    mass: MassSummary = Field(default_factory=MassSummary)
    warnings: List[str] = []


class BatchItemResult(BaseModel):
    index: int
    ok: bool
    quote: Optional[QuoteResult] = None
    errors: List[ValidationIssue] = []
    error_code: Optional[str] = None
