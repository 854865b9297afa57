from authramp_harness.cli import main

main()
