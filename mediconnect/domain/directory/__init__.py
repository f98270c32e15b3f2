# Profile and pharmacy directory
from mediconnect.domain.directory.models import Pharmacy, Profile, ProfileRole

__all__ = ["Pharmacy", "Profile", "ProfileRole"]
