import enum


# --- Enums shared by schemas, pricing tables and the HTTP surface ---

class ProcessKind(str, enum.Enum):
    CUT = "cut"
    BEND = "bend"
    WELD = "weld"
    FINISH = "finish"
    ASSEMBLY = "assembly"
    INSTALLATION = "installation"


class SheetMode(str, enum.Enum):
    AUTO = "auto"
    MANUAL = "manual"


class CostMode(str, enum.Enum):
    # "bought": charge every purchased sheet in full
    # "used": charge net material plus the scrap floor; surplus goes to stock
    BOUGHT = "bought"
    USED = "used"


class GrainDirection(str, enum.Enum):
    X = "x"
    Y = "y"


# Placement failure codes (see exceptions.PlacementError)
UNPLACED_PARTS = "UNPLACED_PARTS"
NO_SHEETS = "NO_SHEETS"
