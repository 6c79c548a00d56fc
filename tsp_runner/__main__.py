from tsp_runner.cli import main

raise SystemExit(main())
