from page_audit.cli import main

main()
