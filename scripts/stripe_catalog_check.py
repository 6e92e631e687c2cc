#!/usr/bin/env python3
"""Cross-check the configured credit catalog against the Stripe account.

Every payment link the webhook resolves by id must exist and be active, its
public URL must be the one handed out by /api/create-checkout for the same
package size, and its line-item amount must resolve to the same quantity
through the amount fallback.

Usage:
  STRIPE_SECRET_KEY=sk_live_... python scripts/stripe_catalog_check.py --expect-mode live
"""

from __future__ import annotations

import argparse
import os

import stripe
from dotenv import load_dotenv

from hoho.config import load_catalog


def infer_key_mode(key_value: str) -> str:
    key = str(key_value or "").strip()
    if not key:
        return "missing"
    if key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unknown"


class CatalogChecker:
    def __init__(self, *, catalog, expect_mode: str) -> None:
        self.catalog = catalog
        self.expect_mode = expect_mode
        self.total = 0
        self.failures = 0

    def _check(self, label: str, condition: bool, detail: str = "") -> None:
        self.total += 1
        print(f"[{'PASS' if condition else 'FAIL'}] {label}")
        if detail:
            print(f"       {detail}")
        if not condition:
            self.failures += 1

    def _check_link(self, link_id: str, quantity: int) -> None:
        try:
            link = stripe.PaymentLink.retrieve(link_id)
        except stripe.StripeError as exc:
            self._check(f"{link_id} exists", False, str(exc))
            return
        self._check(f"{link_id} is active", bool(link.active))

        configured_url = self.catalog.payment_links.get(quantity, "")
        self._check(
            f"{link_id} URL matches package {quantity}",
            link.url == configured_url,
            f"stripe={link.url} configured={configured_url or 'missing'}",
        )

        line_items = stripe.PaymentLink.list_line_items(link_id, limit=10)
        amounts = [item.amount_total for item in line_items.data]
        resolved = sum(self.catalog.amount_customizations.get(amount, 0) for amount in amounts)
        self._check(
            f"{link_id} amount fallback resolves to {quantity}",
            resolved == quantity,
            f"line item amounts={amounts} resolved={resolved}",
        )

    def run(self) -> int:
        key_mode = infer_key_mode(stripe.api_key)
        self._check("Stripe secret key mode matches expected", key_mode == self.expect_mode, f"mode={key_mode}")
        if key_mode == "missing":
            print("Stripe catalog status: FAILED")
            return 1

        for link_id, quantity in sorted(self.catalog.payment_link_customizations.items(), key=lambda kv: kv[1]):
            self._check_link(link_id, quantity)

        missing_links = set(self.catalog.payment_links) - set(self.catalog.payment_link_customizations.values())
        self._check(
            "Every checkout package has a resolvable payment link id",
            not missing_links,
            f"packages without link id: {sorted(missing_links)}" if missing_links else "",
        )

        print("")
        print(f"Summary: {self.total - self.failures}/{self.total} checks passed.")
        if self.failures:
            print("Stripe catalog status: FAILED")
            return 1
        print("Stripe catalog status: PASSED")
        return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Verify the credit catalog against Stripe payment links.")
    parser.add_argument("--expect-mode", default="live", choices=["live", "test"], help="Expected Stripe key mode")
    args = parser.parse_args()

    load_dotenv()
    stripe.api_key = os.getenv("STRIPE_SECRET_KEY", "").strip()
    return CatalogChecker(catalog=load_catalog(), expect_mode=args.expect_mode).run()


if __name__ == "__main__":
    raise SystemExit(main())
