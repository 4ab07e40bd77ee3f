"""Run the HGT Index scoring from a source checkout.

Equivalent to the ``hgt-index`` console script, e.g.:

    python scripts/run_pipeline.py run -i hits.taxified.out -p taxdump/ -k 6231
"""

from hgt_index.cli import main

if __name__ == "__main__":
    main()
