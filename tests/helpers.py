"""Shared constants and helpers for fund ledger tests."""

START_TIME = 1_700_000_000
USDC = 10**6
WETH = 10**18
WBTC = 10**8
SHARE = 10**18


def add_liquidity(router, usdc, weth, wbtc) -> None:
    """Fund a router so it can pay out every asset."""
    usdc.mint(router.address, 10_000_000 * USDC)
    weth.mint(router.address, 1_000 * WETH)
    wbtc.mint(router.address, 100 * WBTC)
