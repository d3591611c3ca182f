from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Fabquote Pricing Core"
    LOG_LEVEL: str = "INFO"

    # Estimator shape penalty: 1 + min(CAP, (aspect - 1) * PER_ASPECT)
    # Tuned on stainless sheet work; revisit before using on other materials.
    SHAPE_PENALTY_PER_ASPECT: float = 0.05
    SHAPE_PENALTY_CAP: float = 0.35

    # "used" cost mode: net kg inflated by this floor when the policy omits it
    SCRAP_MIN_PCT_DEFAULT: float = 0.15

    # Placement (guillotine row packing), millimetres
    NESTING_KERF_MM: float = 0.5
    NESTING_MARGIN_MM: float = 5.0
    NESTING_ALLOW_ROTATE: bool = True
    NESTING_MIN_UTILIZATION: float = 0.70
    NESTING_MAX_SHEETS: int = 500

    # Bar (tube/angle) cutting, millimetres
    BAR_KERF_MM: float = 3.0
    BAR_EDGE_LOSS_MM: float = 0.0

    # Upper bound on one BOM line's quantity
    MAX_PART_QUANTITY: int = 10000

    # Anti-loss floor: cost / max(1 - margin, MARGIN_EPSILON)
    MARGIN_EPSILON: float = 1e-9

    DEFAULT_DENSITY_KG_M3: float = 7900.0

    class Config:
        env_file = ".env"


settings = Settings()
