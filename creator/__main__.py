from creator.cli import main

main()
