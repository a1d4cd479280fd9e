from medreminder.main import main

main()
