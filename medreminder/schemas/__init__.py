from .medicine_plan import (
    FoodTiming,
    MedicinePlanCreate,
    MedicinePlanRead,
    MedicinePlanUpdate,
    NOTIFICATION_TIME_PATTERN,
    coerce_plan,
)
