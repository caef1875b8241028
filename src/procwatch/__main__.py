from procwatch.app import main

main()
