from .medicine_plan import PlanStore
