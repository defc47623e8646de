from elastic_ingest_top.cli import main

main()
