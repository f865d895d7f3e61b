# Empty file to make ledgersync a package
