from s3migrate.cli import main

if __name__ == "__main__":
    main()
