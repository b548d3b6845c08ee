from tidymarks.cli.organize import main

raise SystemExit(main())
