"""Coupon scanning service: OCR text to coupon records and per-amount statistics."""
