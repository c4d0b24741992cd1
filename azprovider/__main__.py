from azprovider.cli import main

main()
