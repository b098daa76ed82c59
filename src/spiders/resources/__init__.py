"""URI resolution for values that reference external content."""

from .loader import FITS_SUFFIX, ResourceLoader, is_fits_path

__all__ = ["ResourceLoader", "FITS_SUFFIX", "is_fits_path"]
