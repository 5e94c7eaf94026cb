from metaagents.cli import main

raise SystemExit(main())
