"""Database models."""

from clinicflow.models.appointments import appointments
from clinicflow.models.base import metadata
from clinicflow.models.clinics import clinics
from clinicflow.models.doctor_availability import doctor_availability
from clinicflow.models.doctors import doctors
from clinicflow.models.organizations import organizations
from clinicflow.models.patients import patient_organizations, patients
from clinicflow.models.units import units

__all__ = [
    "appointments",
    "clinics",
    "doctor_availability",
    "doctors",
    "metadata",
    "organizations",
    "patient_organizations",
    "patients",
    "units",
]
