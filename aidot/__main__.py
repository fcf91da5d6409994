from aidot.cli import main

main()
