from fastapi import APIRouter
from app.api.endpoints import (
    system,
    users,
    materials,
    subjects,
    notices,
    announcements,
    subscriptions,
    payments,
    projects,
    internships,
    courses,
    contact,
    dashboard,
    analytics,
    notifications,
)

api_router = APIRouter()

# Health and maintenance switch sit at the /api root
api_router.include_router(system.router)

api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(materials.router, prefix="/materials", tags=["Materials"])
api_router.include_router(subjects.router, prefix="/subjects", tags=["Subjects"])
api_router.include_router(notices.router, prefix="/notices", tags=["Notices"])
api_router.include_router(announcements.router, prefix="/announcements", tags=["Announcements"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(projects.router, prefix="/projects", tags=["Projects"])
api_router.include_router(internships.router, prefix="/internships", tags=["Internships"])
api_router.include_router(courses.router, prefix="/courses", tags=["Courses"])
api_router.include_router(contact.router, prefix="/contact", tags=["Contact"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
