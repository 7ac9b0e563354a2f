#!/usr/bin/env python3
"""
Safe Iceberg Monitor Startup Script

This script helps you safely start the monitor by:
1. Checking that .env file exists
2. Validating the positions file
3. Running pre-flight checks
4. Starting the monitor with proper error handling
"""

import os
import sys
from pathlib import Path

import yaml


def check_env_file():
    """Verify .env file exists and has required keys."""
    env_file = Path('.env')

    if not env_file.exists():
        print("❌ ERROR: .env file not found")
        print("\nCreate .env file with at least:")
        print("  SX_PRIVATE_KEY=0x...  (signs orders and cancels)")
        print("  SX_API_KEY=...        (optional, enables realtime feeds)")
        return False

    with open(env_file) as f:
        content = f.read()
        if 'SX_PRIVATE_KEY' not in content:
            print("❌ ERROR: Missing SX_PRIVATE_KEY in .env")
            return False
        if 'SX_API_KEY' not in content:
            print("⚠️  SX_API_KEY not set: order book will refresh from REST snapshots only")

    print("✅ .env file present and valid")
    return True


def check_positions():
    """Validate the positions file, if there is one."""
    positions_file = Path(os.getenv('SX_POSITIONS_FILE', 'configs/positions.yaml'))

    if not positions_file.exists():
        print(f"⚠️  {positions_file} not found: starting with no positions")
        return True

    try:
        with open(positions_file) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        print(f"❌ ERROR: {positions_file} is not valid YAML: {e}")
        return False

    if not isinstance(data, dict):
        print(f"❌ ERROR: {positions_file} must map market hashes to position settings")
        return False

    required = ('outcome', 'maxFill', 'increments', 'edge', 'maxVig')
    for market_hash, cfg in data.items():
        missing = [k for k in required if not isinstance(cfg, dict) or k not in cfg]
        if missing:
            print(f"❌ ERROR: {market_hash}: missing {', '.join(missing)}")
            return False

    print(f"✅ Positions file present and valid ({len(data)} markets)")
    return True


def check_logs_directory():
    """Ensure the log file's directory exists."""
    log_file = Path(os.getenv('SX_LOG_FILE', 'monitoring.log'))
    if not log_file.parent.exists():
        log_file.parent.mkdir(parents=True)

    print("✅ Log directory ready")
    return True


def show_environment():
    """Show which API the monitor will talk to."""
    base_url = os.getenv('SX_BASE_URL', 'https://api.sx.bet')
    testnet = 'toronto' in base_url.lower() or 'test' in base_url.lower()
    mode = 'TESTNET' if testnet else 'MAINNET'
    color = '🟡' if testnet else '🔴'

    print(f"\n{color} Running on: {mode}")
    print(f"   API: {base_url}")
    if not testnet:
        print("   ⚠️  MAINNET (real money!)")

    return testnet


def confirm_startup(auto_confirm: bool = False):
    """Get user confirmation before starting."""
    from dotenv import load_dotenv
    load_dotenv()

    print("\n" + "="*60)
    print("PRE-FLIGHT CHECKS")
    print("="*60)

    checks = [
        ("Environment file", check_env_file),
        ("Positions file", check_positions),
        ("Logs directory", check_logs_directory),
    ]

    all_passed = True
    for name, check_func in checks:
        if not check_func():
            all_passed = False

    if not all_passed:
        print("\n❌ Pre-flight checks FAILED")
        print("Fix errors above and try again")
        return False

    print("\n✅ All pre-flight checks passed!")
    show_environment()

    # Skip confirmation if auto_confirm (for systemd)
    if auto_confirm:
        print("\n✅ Auto-confirm enabled (--no-confirm)")
        return True

    response = input("\nType 'START' to continue: ").strip().upper()
    if response != 'START':
        print("❌ Startup cancelled")
        return False

    print("\n✅ Starting monitor...")
    return True


def main():
    """Run pre-flight checks and start the monitor."""
    import argparse

    parser = argparse.ArgumentParser(description='SX Bet Iceberg Monitor')
    parser.add_argument('--no-confirm', action='store_true',
                        help='Skip startup confirmation (for systemd/automated use)')
    args = parser.parse_args()

    if not confirm_startup(auto_confirm=args.no_confirm):
        sys.exit(1)

    from sxiceberg.main import run
    code = run(with_positions=True)
    if code == 0:
        print("\n\n✅ Monitor stopped gracefully")
    else:
        print(f"\n❌ Monitor exited with code {code}")
        print("\nCheck monitoring.log for details")
    sys.exit(code)


if __name__ == '__main__':
    main()
