from .medicine_plan import MedicinePlan
