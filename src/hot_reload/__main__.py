from hot_reload.app import main

if __name__ == "__main__":
    main()
