from efficio.main import main

main()
