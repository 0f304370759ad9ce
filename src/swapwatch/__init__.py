"""swapwatch - real-time Solana wallet swap tracker."""

__version__ = "0.3.0"
