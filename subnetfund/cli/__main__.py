from .inspect import main

main()
