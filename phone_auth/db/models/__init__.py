# Models package (re-export feature modules for stable imports)
from .users.user import Profile
from .auth.otp import OtpRecord

__all__ = [
    "Profile",
    "OtpRecord",
]
