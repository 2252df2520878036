from pipmanager.cli import main

main()
