from logvault.main import main

main()
