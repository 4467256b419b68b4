from fastapi import APIRouter

from rehapp.api.routes import activity, doctor, exercises, patient

api_router = APIRouter()

api_router.include_router(activity.router, tags=["activity"])
api_router.include_router(exercises.router, tags=["exercises"], prefix="/exercises")
api_router.include_router(patient.router, tags=["patient"], prefix="/patient")
api_router.include_router(doctor.router, tags=["doctor"], prefix="/doctor")
