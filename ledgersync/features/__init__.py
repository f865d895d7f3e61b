# Feature packages
