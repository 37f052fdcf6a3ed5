"""Utility helpers."""

from .masking import mask_otp, mask_phone, mask_url

__all__ = ["mask_otp", "mask_phone", "mask_url"]
