import sys

from fund_ledger.fund.cli import main

sys.exit(main())
