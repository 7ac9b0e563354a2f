"""Script to list and cancel all of the operator's resting SX Bet orders on the given markets."""
import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

from sxiceberg.config.positions import load_positions
from sxiceberg.core.errors import IcebergError
from sxiceberg.core.rounding import odds_to_probability, unscale_amount
from sxiceberg.infra.exchange_client import SXBetClient
from sxiceberg.infra.signing import OrderSigner

# Load environment - try local first, then VPS path
if os.path.exists('.env'):
    load_dotenv('.env')
else:
    load_dotenv('/opt/sx-iceberg/.env')


async def cancel_all(markets, assume_yes):
    from eth_account import Account

    signer = OrderSigner(Account.from_key(os.environ['SX_PRIVATE_KEY']),
                         chain_id=int(os.environ.get('SX_CHAIN_ID', '4162')))
    client = SXBetClient(os.environ.get('SX_BASE_URL', 'https://api.sx.bet'),
                         chain_version=os.environ.get('SX_CHAIN_VERSION', 'SXR'))
    try:
        print(f"=== Open Orders for {signer.maker} ===")
        by_market = {}
        for market_hash in markets:
            orders = await client.fetch_active_orders(market_hash, signer.maker, max_retries=3, retry_delay=2.0)
            if orders is None:
                print(f"  {market_hash}: could not fetch orders")
                continue
            by_market[market_hash] = [o['orderHash'] for o in orders if o.get('orderHash')]
            print(f"  {market_hash}: {len(by_market[market_hash])} orders")
            for o in orders:
                side = 1 if o.get('isMakerBettingOutcomeOne') else 2
                print(f"    {o.get('orderHash')} outcome={side} "
                      f"size={unscale_amount(int(o.get('totalBetSize', 0))):.2f} "
                      f"odds={odds_to_probability(int(o.get('percentageOdds', 0))):.4f}")

        hashes = [h for hs in by_market.values() for h in hs]
        if not hashes:
            print("\nNo open orders.")
            return 0

        confirm = 'yes' if assume_yes else input(f"\nCancel ALL {len(hashes)} orders? Type 'yes' to confirm: ")
        if confirm.lower() != 'yes':
            print("Cancelled. No orders were modified.")
            return 0

        print("\nCancelling all orders...")
        # Cancel in batches
        batch_size = 50
        failed = 0
        for i in range(0, len(hashes), batch_size):
            batch = hashes[i:i + batch_size]
            try:
                await client.cancel_orders(signer.sign_cancel(batch))
                print(f"  Batch {i // batch_size + 1}: Cancelled {len(batch)} orders")
            except IcebergError as e:
                failed += 1
                print(f"  Batch {i // batch_size + 1}: failed ({e})")
            await asyncio.sleep(0.3)  # Rate limit
        print("\n=== Done ===")
        return 1 if failed else 0
    finally:
        await client.close()


def main():
    parser = argparse.ArgumentParser(description='Cancel all open SX Bet orders')
    parser.add_argument('markets', nargs='*', help='market hashes (default: every market in the positions file)')
    parser.add_argument('--yes', action='store_true', help='skip the confirmation prompt')
    args = parser.parse_args()

    markets = args.markets or list(load_positions())
    if not markets:
        print("No markets given and no positions file entries found.")
        sys.exit(1)
    sys.exit(asyncio.run(cancel_all(markets, args.yes)))


if __name__ == '__main__':
    main()
