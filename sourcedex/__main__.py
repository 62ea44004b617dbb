from sourcedex.cli import main

main()
