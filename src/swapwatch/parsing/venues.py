"""
Known trade venues (DEX programs) a tracked wallet can swap through.

Only transactions invoking one of these programs are considered trades.
"""

# =============================================================================
# Venue program IDs
# =============================================================================
RAYDIUM_PROGRAM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
JUPITER_PROGRAM = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
PUMP_FUN_PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
METEORA_DLMM_PROGRAM = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
METEORA_POOL_PROGRAM = "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB"

# Venue name -> program id
VENUE_PROGRAMS: dict[str, str] = {
    "RAYDIUM": RAYDIUM_PROGRAM,
    "JUPITER": JUPITER_PROGRAM,
    "PUMPFUN": PUMP_FUN_PROGRAM,
    "METEORADLMM": METEORA_DLMM_PROGRAM,
    "METEORAPOOL": METEORA_POOL_PROGRAM,
}

UNKNOWN_VENUE = "Unknown"


def venue_name(program_id: str | None, venues: dict[str, str] = VENUE_PROGRAMS) -> str:
    """Reverse lookup of a program id; unknown ids resolve to 'Unknown'."""
    if not program_id:
        return UNKNOWN_VENUE
    for name, venue_program in venues.items():
        if venue_program == program_id:
            return name
    return UNKNOWN_VENUE
