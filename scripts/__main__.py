"""Allow `python -m scripts` by running the lineage inspection script."""

from scripts.inspect_lineage import main

main()
