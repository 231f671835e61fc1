"""Router package exports."""
from . import admin, affiliates, auth, dashboard, payouts, programs, registrations, users

__all__ = [
	"admin",
	"affiliates",
	"auth",
	"dashboard",
	"payouts",
	"programs",
	"registrations",
	"users",
]
